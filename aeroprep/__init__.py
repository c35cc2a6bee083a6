"""
AeroPrep - aviation career exam preparation
"""
__version__ = '1.0.0'
