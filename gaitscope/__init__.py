"""gaitscope: gait anomaly scoring and skeleton energy images.

This package turns a pose-landmark sequence into two artifacts: a per-joint
anomaly verdict from a sequence autoencoder, and a greyscale skeleton energy
image (SEI) that feeds a gait-class image classifier.
"""

__all__ = [
    "analysis",
    "cli",
    "config",
]

__version__ = "0.1.0"
