"""Conversational text-to-query generation.

Main Entry Points:
    GenerationService: Resolve, prompt, validate and persist one turn.
    SQLValidator: Read-only classification of SQL and key-value commands.

Supporting Models:
    GenerateRequest/GenerateResponse: Transport contract.
    Conversation/Turn/Schema/DatabaseDescriptor: Conversation state.
"""
