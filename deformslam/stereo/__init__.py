"""Stereo depth estimation; this subpackage currently holds no modules."""