"""
Entity store, query compilation and outbound service clients.
"""
