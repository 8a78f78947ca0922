"""
Types, constants and helpers shared by the cloud functions and the backend.
"""
