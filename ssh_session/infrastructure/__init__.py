"""
Infrastructure layer: process-backed clients, configuration and logging.
"""
