"""
core-settings - gestione account utente e home cifrate
"""
__version__ = "0.1.0"
