"""Coach Strings — fixed texts of the coaching dialogue.

Invariants:
    - All strings are pure data (no IO)
    - SATISFACTION_QUESTION is matched verbatim (substring) to count survey replies,
      so the coaching contract and the counter must share this exact constant
    - END_SESSION_KEYWORDS are lowercase; matching lowercases the user text
"""

AI_INITIAL_GREETING = (
    "To help with our research, could you please tell me your country of origin?"
)

PROBLEM_ELICITATION_PROMPT = (
    "Thank you. What engineering problem/goal can I help you solve today?"
)

COUNTRY_REPROMPT = (
    "I'm sorry, that doesn't seem to be a valid country. "
    "Could you please tell me your country of origin?"
)

SATISFACTION_QUESTION = (
    "Are you satisfied with this solution? We can continue refining or explore "
    "other aspects. If you are satisfied and wish to end the session, please say "
    "'I am satisfied now' or 'End session'."
)

END_SESSION_KEYWORDS: tuple[str, ...] = ("i am satisfied now", "end session")

COACH_ERROR_REPLY = "Sorry, I encountered an error. Please try again."

LOCATION_NOT_AVAILABLE = "Not available"
REFINED_PROMPT_NOT_GENERATED = "Not generated"
SOLUTION_NOT_PROVIDED = "Not provided"
