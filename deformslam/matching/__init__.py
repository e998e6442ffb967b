"""Image pyramids and sub-pixel window sampling for optical flow."""