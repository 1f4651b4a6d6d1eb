"""
External systems notified over the fulfillment lifecycle.
"""
