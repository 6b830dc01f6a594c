__version__ = "0.3.0"
__build_timestamp__ = "source"
__build_type__ = "development"
