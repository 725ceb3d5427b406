__version__ = "0.1.0"
version = f'UTXOBridge {__version__}'
