"""Prompt templates used by the pipeline stages."""

SYSTEM_PROMPT = (
    "You are a helpful assistant that answers questions using the user's own "
    "documents and the conversation so far.\n\n"
    "Use the following guidelines:\n"
    "1. When a CONTEXT section is present, base your answer primarily on it\n"
    "2. Consider the conversation history to maintain context continuity\n"
    "3. If the answer is not in the documents, acknowledge this limitation\n"
    "4. Answer in the language of the question"
)

EXPANSION_TEMPLATE = (
    "Rewrite the question below into a search query for a document retrieval "
    "system. Keep the original meaning and language, add the key terms, "
    "synonyms and closely related concepts a relevant passage would contain, "
    "and spell out abbreviations.\n"
    "Return only the rewritten query on a single line, without explanations "
    "or quotes.\n\n"
    "Question: {question}\n"
    "Search query:"
)

RAG_TEMPLATE = "CONTEXT: {context}\nQUESTION: {question}\n"
