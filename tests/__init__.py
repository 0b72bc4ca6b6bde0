"""Test package for geoscan.

This package contains:
- Unit tests (test_precision.py, test_h3_index.py, test_tiles.py, test_shape.py)
- Model and persistence tests (test_model.py, test_persistence.py)
- Serving tests (test_config_loader.py, test_inference_server.py)
- Test configuration (conftest.py)
"""
