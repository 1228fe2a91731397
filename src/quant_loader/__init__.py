"""quant-loader: multi-vendor data acquisition with typed entity identifiers."""

__version__ = "0.1.0"
