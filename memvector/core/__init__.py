"""
Vector store, creation service and configuration.
"""
