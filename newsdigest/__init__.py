"""newsdigest - layered news analysis from rendered source pages."""

__version__ = "0.1.0"
