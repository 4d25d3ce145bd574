__version__ = "0.0.0"
__is_release__ = False
