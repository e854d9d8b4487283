"""
fasterrcnn Package Tests

Tests for the library components:
- test_config.py: pipeline.yaml access and validation
- test_transforms.py: Geometry and tensor construction
- test_processors.py: Pillow and OpenCV back-ends
- test_postprocess.py: Output decoding and labels
- test_engine.py: ONNX Runtime sessions and registry
- test_detector.py: End-to-end pipeline
- test_acquisition.py: Image sources
- test_assets.py: Downloads and model verification
"""
