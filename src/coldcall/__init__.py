"""Cold-Call Automation Service.

Classifies a business from its website, discovers nearby leads, scores and
deduplicates them, generates a call script, places autodialed calls through a
voice-agent API, and ingests call webhooks to record outcomes.
"""

__version__ = "0.1.0"
