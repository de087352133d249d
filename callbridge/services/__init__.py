"""
Services module for the post-call pipeline.

Key components:
- extraction: Turns a transcript into customer name, availability and notes
  with one structured chat-completions request.
- webhook: Delivers the extracted details to the configured webhook URL.
- post_call: Runs extraction and delivery in the background for each call.
"""

# Services module initialization
