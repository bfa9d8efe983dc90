"""
Scenario content for the chat front-end.

Each scenario defines:
- name: Scenario identifier
- assistant_name: Display name of the assistant
- welcome_text: Greeting shown before the first turn
- sample_phrases: Clickable example questions (display-only)
"""
