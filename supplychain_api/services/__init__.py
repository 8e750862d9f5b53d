"""
Business services composing repositories: notification emission, webhook
verification and processing, realtime fan-out and rate limiting.
"""
