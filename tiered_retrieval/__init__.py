"""
Confidence-tiered retrieval and response-mode decision engine.
Decides whether a chat turn is answered verbatim from the trained Q&A corpus
or delegated to a generative model with retrieved context.
"""

VERSION = "1.0.0"
