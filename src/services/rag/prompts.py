"""Prompt templates for every LLM call the chat and ingestion pipelines make.

Builders are pure functions of their inputs so prompt changes are easy to
review and test.  Stage builders look at the last four messages of the
transcript (rendered as ``role: content``) and at the latest message as the
user's question.
"""

from __future__ import annotations

from collections.abc import Sequence

from src.models.chat import ChatMessage
from src.models.rag import FusedResult

HISTORY_WINDOW = 4

DOCUMENTS_PLACEHOLDER = "{{DOCUMENTS}}"
TOPIC_PLACEHOLDER = "{{TOPIC}}"


def _history_text(history: Sequence[ChatMessage]) -> str:
    recent = list(history)[-HISTORY_WINDOW:]
    return "\n".join(f"{m.role}: {m.content}" for m in recent)


def _latest_question(history: Sequence[ChatMessage]) -> str:
    return history[-1].content if history else ""


# ---------------------------------------------------------------------------
# Query analysis
# ---------------------------------------------------------------------------

_ANALYSIS_TEMPLATE = """You are an assistant that analyzes user questions to identify their underlying intent and relevant contextual information. Follow these steps to analyze the user's question:

1. **Identify the Core Question**:
  - Extract the main question or request from the user's message.
  - Summarize the core question in a concise statement.

2. **Determine the User's Intent**:
  - Infer the user's ultimate goal or what they are trying to achieve with their question.
  - Consider possible constraints or requirements implied by the question.

3. **Contextual Analysis**:
  - Review the conversation history and any provided relevant information to understand the broader context.
  - Identify any specific details, background information, or constraints that might affect the answer.

4. **Related Topics and Keywords**:
  - Identify key topics and keywords related to the question.
  - Consider synonyms or related terms that might be relevant to the search.

5. **Formulate Searchable Aspects**:
  - Based on the analysis from steps 1-4, identify different aspects or sub-questions that need to be addressed.
  - These aspects should be tailored to the specific context and requirements of the user's question.
  - Ensure that these aspects cover various dimensions relevant to the question.


Provide your analysis in the following format:

```
### Analysis:

1. **Core Question**:
  - [Core question summary]

2. **User's Intent**:
  - [User's ultimate goal]

3. **Contextual Analysis**:
  - [Context and background information]

4. **Related Topics and Keywords**:
  - [Key topics and keywords]

5. **Formulate Searchable Aspects**:
  - [Aspects to be searched]
```

## Example

### User's question:
システムの再起動処理はいつ行われますか？

### Analysis:

1. **Core Question**:
  - When is the system reboot process scheduled to occur?

2. **User's Intent**:
  - The user wants to know the specific times or conditions under which the system reboot process is scheduled. This could be for planning maintenance, minimizing disruption, or ensuring uptime.

3. **Contextual Analysis**:
  - The system may have a regular maintenance schedule that includes reboot times.
  - Reboot processes might be planned to avoid peak usage times to minimize disruption.
  - There may be specific triggers or conditions that necessitate a system reboot (e.g., software updates, performance issues).

4. **Related Topics and Keywords**:
  - System maintenance schedule, reboot schedule, system uptime, maintenance windows, peak usage times, software updates, system performance, IT policies.

5. **Formulate Searchable Aspects**:
  - Based on the context and intent, identify aspects such as:
    - Regular maintenance schedules that include system reboots.
    - Times of day or week when system reboots are typically performed.
    - Conditions or triggers for initiating a system reboot (e.g., after updates or during low usage periods).
    - Historical data on past reboot times and their impact on system performance.


## Actual analysis targets

### Relevant information:
{relevant_info}

### Conversation history:
{history}

### User's question:
{question}

---

Please remember that your role is to provide analysis according to the given instructions and format. Only include analysis in your response.
Begin your analysis by following the specified guidelines and structure.

### Analysis:
"""


def build_analysis_prompt(history: Sequence[ChatMessage], topic: str, db_description: str) -> str:
    relevant_info = (
        f"Available document databases:\n{db_description}\n\nChat topics information:\n{topic}"
    )
    return _ANALYSIS_TEMPLATE.format(
        relevant_info=relevant_info,
        history=_history_text(history),
        question=_latest_question(history),
    )


# ---------------------------------------------------------------------------
# Sufficiency classification
# ---------------------------------------------------------------------------

_SUFFICIENCY_TEMPLATE = """You are an assistant that determines whether document search is "possible" or "necessary" based on the user's latest question, recent chat history, and provided analysis.

## Context
- Relevant information:
{relevant_info}

- Recent chat history:
{history}

## User's latest question
{question}

## Analysis of user's question
{analysis}

## Instructions
Based on the provided context, analyze the user's latest question. Determine whether document search is "possible" or "necessary." Document search should be deemed "possible" or "necessary" if at least two of the following conditions are met:

1. The user's question includes specific keywords or phrases that indicate a need for detailed information or data.
2. The recent chat history provides context or details that could guide a meaningful document search.
3. The provided analysis highlights relevant topics, keywords, or areas of interest that can be used for a document search.
4. There is an indication that available documents might contain information that could help address the user's question.

If at least two of these conditions are met, output the result in JSON format as follows:

{{
  "documentSearch": true,
  "reason": "The user's question and provided context contain sufficient information to perform a meaningful document search based on the following conditions: [specific conditions met]."
}}

If fewer than two of these conditions are met, output the result in JSON format as follows:

{{
  "documentSearch": false,
  "reason": "The user's question and provided context do not contain sufficient information to perform a meaningful document search or the search is not necessary. The reason for this conclusion is: [detailed reason why the search is not possible or necessary]. You should ask the user for more specific information or clarification to proceed."
}}

Output only the JSON result and nothing else.
"""


def build_sufficiency_prompt(history: Sequence[ChatMessage], topic: str, analysis: str) -> str:
    return _SUFFICIENCY_TEMPLATE.format(
        relevant_info=f"Chat topics information:\n{topic or 'Not Provided'}",
        history=_history_text(history),
        question=_latest_question(history),
        analysis=analysis,
    )


# ---------------------------------------------------------------------------
# Query transformation
# ---------------------------------------------------------------------------

_TRANSFORMATION_TEMPLATE = """You are an assistant that converts user questions into effective search prompts for document retrieval.
Generate multiple search prompts that resemble potential answers or information snippets related to the user's question.
Note: Up to the third prompt should be in the same language as the user's question. The fourth prompt is in English.

Consider the following steps when generating the prompts:

1. **Understand the user's intent**: Based on the analysis provided, what is the user trying to achieve or find out? What underlying needs or constraints might they have?
2. **Identify potential background information**: Based on the analysis, what context or additional information might be relevant to the user's question? This could include system limitations, business processes, or user preferences.
3. **Formulate statements**: Create prompts that resemble potential answers or information snippets. These should be declarative statements rather than questions.
4. **Incorporate key elements**: Ensure each prompt includes relevant keywords, entities, and concepts identified in the analysis.
5. **Consider multiple perspectives**: Create prompts that approach the information from different angles or viewpoints relevant to the user's question.
6. **Refine the prompts**: Ensure each prompt is clear, concise, and directly relevant to the user's desired information.
7. **Limit the number of prompts**: Generate a maximum of four prompts to cover different aspects or potential answers.

Each prompt must be output in the following JSON format only:

[
  {{
    "perspective": "Explain perspective 1",
    "prompt": "Converted prompt 1"
  }},
  {{
    "perspective": "Explain perspective 2",
    "prompt": "Converted prompt 2"
  }},
  {{
    "perspective": "Explain perspective 3",
    "prompt": "Converted prompt 3 in English"
  }}
]

By following these guidelines, you can generate effective and comprehensive search prompts that resemble potential answers, improving the likelihood of retrieving relevant document chunks.

## Relevant information
{relevant_info}

## Conversation history
{history}

## User's question
{question}

## Analysis of user's question
{analysis}

## Converted prompts
"""


def build_transformation_prompt(
    history: Sequence[ChatMessage],
    topic: str,
    analysis: str,
    db_description: str,
) -> str:
    relevant_info = (
        f"Available document databases:\n{db_description}\n\nChat topics information:\n{topic}"
    )
    return _TRANSFORMATION_TEMPLATE.format(
        relevant_info=relevant_info,
        history=_history_text(history),
        question=_latest_question(history),
        analysis=analysis,
    )


# ---------------------------------------------------------------------------
# Answer system prompts
# ---------------------------------------------------------------------------

def format_search_results(results: Sequence[FusedResult], db_info: str) -> str:
    """Render fused results as the markdown block injected into the system prompt."""
    blocks = []
    for index, result in enumerate(results, start=1):
        source = result.metadata.get("source") or "Unknown source"
        title = result.metadata.get("title") or "Unknown title"
        blocks.append(
            f"### Result {index}\n"
            f"**Source:** {source}\n"
            f"**Title:** {title}\n"
            f"**Content:** {result.page_content}\n"
            f"**Score:** {result.combined_score}\n"
        )
    return (
        f"## Search Info\n**Search target database:** {db_info}\n\n"
        f"## Search Results\n" + "\n---\n".join(blocks)
    )


def _fill(template: str, placeholder: str, value: str, tag: str) -> str:
    """Substitute *placeholder*, or append ``<tag>`` when it is absent.

    An empty *value* only removes the placeholder.
    """
    if not value:
        return template.replace(placeholder, "")
    if placeholder in template:
        return template.replace(placeholder, value)
    return f"{template}\n\n<{tag}>\n{value}\n</{tag}>\n"


def build_qa_system_prompt(
    system_message: str,
    topic: str,
    results: Sequence[FusedResult],
    db_info: str,
) -> str:
    documents = format_search_results(results, db_info).strip() if results else ""
    prompt = _fill(system_message, DOCUMENTS_PLACEHOLDER, documents, "Documents")
    return _fill(prompt, TOPIC_PLACEHOLDER, topic, "Topic")


def build_follow_up_system_prompt(system_message: str, topic: str, reason: str) -> str:
    prompt = _fill(system_message, DOCUMENTS_PLACEHOLDER, reason, "Followup Reason")
    return _fill(prompt, TOPIC_PLACEHOLDER, topic, "Topic")


def db_info_label(name: str, description: str) -> str:
    return f"{name}({description})"


# ---------------------------------------------------------------------------
# Metadata generation
# ---------------------------------------------------------------------------

CHAT_NAME_SYSTEM = "You are the AI of generating conversation titles."

CHAT_NAME_PROMPT = (
    "Based on your conversation history, create a short title, no more than 5~7 words, "
    "that is appropriate for this conversation. Titles should be created in the language "
    "used by the user. Do not output anything other than the title of the conversation. "
    "Avoid including unnecessary characters such as brackets or 'Title:'."
)

DB_INFO_SYSTEM = "You are an AI specialized in generating database names and descriptions."

_DB_INFO_TEMPLATE = """Based on the following list of document names, infer a useful and relevant short database name (a few characters) and a description (a few sentences) that accurately represent the contents and purpose of the documents. Ensure the database name is concise and the description is clear and informative.

Provide the output in the following JSON format:
{{
  "dbName": "short and clear database name (one word if possible)",
  "dbDescription": "detailed description of the database (within 100 characters)"
}}

The output should be in the {language} language. Do not output anything other than the JSON object. Ensure the database name is clear and the description does not exceed 50 characters.

Document names:
{document_names}"""


def build_db_info_prompt(file_names: Sequence[str], language: str) -> str:
    return _DB_INFO_TEMPLATE.format(
        language=language.upper(),
        document_names="\n".join(file_names),
    )


DOC_TITLE_SYSTEM = "You are an AI specialized in generating document titles."

DOC_TITLE_EXCERPT_CHARS = 350

_DOC_TITLE_TEMPLATE = """Based on the following document content, extract a relevant title if it includes a clear and concise title-like string. If the document does not include a clear title, generate a suitable and relevant title that accurately represents the content. Ensure the title is in the same language as the provided content.

Provide the output in the following JSON format:
{{
  "title": "short and clear document title"
}}

The output should be the same language as the document content. Do not output anything other than the JSON object. Ensure the title is clear and concise.

Document content:
FileName: {file_name}
Content: {content}"""


def build_doc_title_prompt(content: str, file_name: str) -> str:
    return _DOC_TITLE_TEMPLATE.format(
        file_name=file_name,
        content=content[:DOC_TITLE_EXCERPT_CHARS],
    )

