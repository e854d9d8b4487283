"""HTTP service exposing the Faster R-CNN detection pipeline."""
