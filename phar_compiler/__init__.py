"""phar-compiler.

A small build utility that bundles a PHP application and its vendor
libraries into a single, reproducible ``.phar`` file.
"""

__all__: list[str] = ["__version__"]

__version__: str = "0.1.0"
