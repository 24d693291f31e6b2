"""
Centralized prompt definitions for Blind Verdict.

This module contains every system prompt and template sent to the language model.
Each prompt is documented with its specific role and usage context.
"""


# ============================================================================
# CHAT ASSISTANT PROMPTS
# ============================================================================

DEFAULT_SYSTEM_MESSAGE = (
    "You are an expert in analyzing and comparing different perspectives."
)
"""
Role: Base system message for every model call.

Context: Participants discuss the guiding question privately with the assistant; the
same persona later adjudicates between both final conclusions. Can be overridden with
the AI_SYSTEM_MESSAGE setting.

Used by: OpenAIGateway.generate() and OpenAIGateway.compare().
"""


TOPIC_SYSTEM_MESSAGE_TEMPLATE = (
    'You are a debate assistant. Current discussion topic: "{question}". {system_message}'
)
"""
Role: System message used when a call is explicitly scoped to a guiding question.

Context: Keeps the assistant anchored to the room topic. Placeholders: {question},
{system_message}.

Used by: OpenAIGateway.generate() when a guiding_question is supplied.
"""


FIRST_TURN_TEMPLATE = (
    'We are discussing the following question: "{question}"\n\n'
    "User's message: {message}"
)
"""
Role: Frames the participant's opening message with the room's guiding question.

Context: Only the transmitted copy of the first user message is framed. The stored
chat history always keeps the participant's text exactly as typed.

Used by: ChatService.send_message() on the first turn of a session.
"""


# ============================================================================
# ADJUDICATION PROMPTS
# ============================================================================

COMPARISON_PROMPT_TEMPLATE = (
    "You are tasked with comparing two different conclusions about the following "
    "question. Decide impartially which one answers it better, and why.\n"
    'Question: "{question}"\n\n'
    '{name_a}:\n"{conclusion_a}"\n\n'
    '{name_b}:\n"{conclusion_b}"\n\n'
    "Focus on the question and be concise. Do not favour either participant because of "
    "the order in which they are presented."
)
"""
Role: Neutral adjudication prompt comparing the two submitted conclusions.

Context: Sent once per room after both participants submitted. Placeholders:
{question}, {name_a}, {conclusion_a}, {name_b}, {conclusion_b}.

Used by: OpenAIGateway.compare() from ComparisonService.compare_room().
"""
