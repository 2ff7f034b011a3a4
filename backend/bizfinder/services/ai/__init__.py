"""
Conversation layer: the model client and the tool-calling loop.

The model decides which tools to call and phrases the answer; retrieval and
ranking stay in the deterministic tools.
"""
