"""
tools — provider API request builders.

Each module turns a high-level query (calendar events, mail threads) into a
``ProviderRequest`` for ``connectors.executor`` and reshapes the successful
payload for the frontend.  None of them touch credentials.
"""
