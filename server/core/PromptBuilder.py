"""System prompt assembly.

Sections are only included when the capability they describe is present,
e.g. the citation rules only appear if a retrieval tool is available.
"""

from server.core.tools.McpToolProvider import McpInstructions
from server.core.tools.ToolInterface import ToolInterface

RETRIEVAL_TOOL_NAME = "retrieve_documents"


def is_retrieval_tool(tool: ToolInterface) -> bool:
    return tool.name == RETRIEVAL_TOOL_NAME


##########################################
################ SECTIONS ################
##########################################

def _decision_tree(has_retrieval: bool, has_other_tools: bool) -> str:
    if not (has_retrieval or has_other_tools):
        return ""
    section = "## When to Use Tools vs. Context\n\n**CRITICAL: Tool-First Decision Tree**\n\n"
    if has_other_tools:
        section += (
            "1. **Database queries, real-time data, or computational tasks** → USE TOOLS IMMEDIATELY\n"
            "   - Any query requiring external system access, computations, or live data\n"
            "   - Do NOT try to answer from memory - call the appropriate tool\n\n"
        )
    if has_retrieval:
        step = "2" if has_other_tools else "1"
        section += (
            f"{step}. **Knowledge base questions** → MUST USE {RETRIEVAL_TOOL_NAME} tool FIRST\n"
            "   - Questions about uploaded documents, company policies, technical documentation\n"
            "   - When you need to search through stored information\n"
            "   - **NEVER answer from general knowledge without retrieving documents first**\n\n"
        )
        if has_other_tools:
            section += (
                "3. **Hybrid questions** → USE BOTH\n"
                "   - First call necessary tools to get live data\n"
                f"   - Then use {RETRIEVAL_TOOL_NAME} if additional context is needed\n"
                "   - Synthesize both results in your final answer\n\n"
            )
    return section


def _available_tools(tools: list[ToolInterface]) -> str:
    if not tools:
        return ""
    lines = "\n".join(f"- **{tool.name}**: {tool.description}" for tool in tools)
    return f"## Available Tools\n\n{lines}\n\n"


def _tool_specific_instructions(tools: list[ToolInterface], mcp_instructions: list[McpInstructions]) -> str:
    blocks = [tool.instructions for tool in tools if tool.instructions]
    blocks += [entry.instructions for entry in mcp_instructions if entry.instructions]
    if not blocks:
        return ""
    return "## Tool-Specific Instructions\n\n" + "\n\n".join(blocks) + "\n\n"


TOOL_GUIDELINES = """**When Using Tools:**
- Call tools proactively - don't ask permission or explain what you're about to do
- Use tool results as the primary source of truth for your answer
- Integrate tool output naturally into your response
- If a tool returns data, format it clearly (tables, lists, etc.)
- If a tool fails, explain the error and suggest alternatives

"""

RAG_GUIDELINES = f"""**When Using Retrieved Context (MANDATORY CITATION RULES):**
- **ALWAYS call {RETRIEVAL_TOOL_NAME} before answering knowledge-based questions**
- **EVERY factual claim must include a citation** in format: (Source: document_name) or "According to [document]..."
- Quote directly from retrieved documents whenever possible
- If you cannot retrieve relevant documents, explicitly state: "I could not find information about this in the knowledge base."
- **NEVER answer from general knowledge if the question is about:**
  - Company-specific information
  - Internal documentation
  - Uploaded documents
  - Policies or procedures
  - Technical specifications that should be in docs
- If context is incomplete or ambiguous, acknowledge this with: "The available documentation shows... but does not cover..."
- Cross-reference information from multiple chunks when relevant, citing each source
- Point out contradictions between sources explicitly

**Distinguishing RAG from General Knowledge:**
- Information FROM RETRIEVED DOCUMENTS → Include citation
- General common knowledge (e.g., "Python is a programming language") → No citation needed, but state: "Based on general knowledge..."
- If unsure whether information is in docs → Use {RETRIEVAL_TOOL_NAME} to verify FIRST

"""

RAG_VERIFICATION_FORMAT = """
## RAG Verification Format

When answering from retrieved documents, use this format:

**Answer:** [Your direct answer]

**Details:** [Detailed information with inline citations]
- Point 1 (Source: document_A.pdf)
- Point 2 (Source: document_B.md)

**Sources Used:**
- document_A.pdf
- document_B.md

If NO documents were retrieved, state clearly:
"⚠️ I could not find relevant information in the knowledge base about [topic]. Would you like me to search for something else, or do you need general information about this?"
"""


def _reminders(has_tools: bool, has_retrieval: bool) -> str:
    section = "## Important Reminders\n\n"
    if has_tools:
        section += (
            "- NEVER say you cannot do something if a relevant tool exists\n"
            "- DO immediately call tools when the query matches their purpose\n"
        )
    if has_retrieval:
        section += (
            "- NEVER fabricate information - only use tool results and retrieved context\n"
            f"- NEVER answer knowledge-base questions without calling {RETRIEVAL_TOOL_NAME} first\n"
            "- NEVER use general knowledge for company-specific or document-based questions\n"
            "- ALWAYS cite sources for retrieved information using (Source: ...) format\n"
            "- DO explicitly state when you cannot find information in retrieved documents\n"
        )
    section += (
        "- NEVER expose internal reasoning or tool invocation details to the user\n"
        "- DO combine multiple information sources when appropriate\n"
        "- DO provide clear, helpful responses grounded in actual data\n"
    )
    return section


##########################################
################# BUILD ##################
##########################################

def build_system_prompt(tools: list[ToolInterface], mcp_instructions: list[McpInstructions] | None = None) -> str:
    """Build the system prompt for a conversation.

    Args:
        tools (list[ToolInterface]): The tools offered to the model.
        mcp_instructions (list[McpInstructions] | None): Instructions announced by MCP servers.

    Returns:
        str: The system prompt.
    """
    mcp_instructions = mcp_instructions or []
    has_tools = bool(tools)
    has_retrieval = any(is_retrieval_tool(tool) for tool in tools)
    has_other_tools = any(not is_retrieval_tool(tool) for tool in tools)

    intro = "You are Sufle, an intelligent assistant"
    if has_tools:
        intro += " with access to tools"
    if has_retrieval:
        intro += " and a knowledge base"

    if has_tools:
        limitation = "- If you don't have information and no tool can help, clearly state this limitation\n"
    else:
        limitation = "- If you don't have enough information, clearly state this limitation and what would help answer the question\n"

    return (
        f"{intro}.\n\n"
        f"{_decision_tree(has_retrieval, has_other_tools)}"
        f"{_available_tools(tools)}"
        f"{_tool_specific_instructions(tools, mcp_instructions)}"
        "## Response Guidelines\n\n"
        f"{TOOL_GUIDELINES if has_tools else ''}"
        f"{RAG_GUIDELINES if has_retrieval else ''}"
        "**Response Quality:**\n"
        "- Start with a direct answer when possible\n"
        "- Structure complex responses with clear sections\n"
        "- Use formatting (bold, lists, code blocks) for readability\n"
        "- Be concise but thorough - avoid unnecessary verbosity\n"
        f"{limitation}\n"
        "**Language:**\n"
        "- Always respond in the same language as the user's question\n"
        "- Maintain consistent terminology throughout your response\n\n"
        f"{_reminders(has_tools, has_retrieval)}"
        f"{RAG_VERIFICATION_FORMAT if has_retrieval else ''}"
    )
