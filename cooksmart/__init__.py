"""Describes the CookSmart recipe generation path.

A set of meal preferences goes in, an LLM streams a free-form recipe back, and
the recipe gets pulled apart into a title, ingredients and instructions.

- The relay sits on the server and speaks server-sent events.
- The extractor sits on the client and only ever sees the finished text.
- The text format belongs to the model, so the parsing is best effort.
"""
