"""Building blocks for deformable visual SLAM: masking, optical-flow windows and optimization terms."""

__version__ = "0.1.0"