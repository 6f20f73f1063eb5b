"""Fixed prompt texts for the booking widget deployment.

Both can be overridden through the environment (see ``config.settings``);
the values below are the defaults for the Swedish deployment.
"""

SYSTEM_PROMPT = "Du är en hjälpsam AI-assistent som svarar kort och tydligt på svenska."

# Committed as the assistant turn whenever the completion service answers
# with something we cannot use.
FALLBACK_REPLY = "Jag kunde inte svara just nu."
