"""
Faster R-CNN Sample - Test Suite

Test modules mirror the package layout:
- tests/fasterrcnn/: Library tests (config, processing, engine, detector, ...)
- tests/fasterrcnn/app/: HTTP service tests

Tests marked ``slow`` need the real model (python scripts/setup_assets.py).
"""
