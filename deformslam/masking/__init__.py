"""Image filters and the masker that combines them."""