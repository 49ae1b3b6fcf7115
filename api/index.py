# Vercel Python ASGI entrypoint wrapper
# Vercel will install the project dependencies and run this file as a serverless function.

from frame_api import app

# Vercel expects a top-level 'app' variable that is an ASGI/WSGI application.
# vercel.json rewrites every path here, so the Frame keeps its
# /api/on-chain-cow-farcaster-frame URL.

__all__ = ["app"]
