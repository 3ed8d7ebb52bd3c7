"""Core domain package for notifrelay.

Core contains normalization, filtering, history and forwarding logic without
any platform, storage or HTTP-specific code, keeping the pipeline portable.
"""
