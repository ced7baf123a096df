from server.core.tools.ToolInterface import ToolInterface
from server.stores.VectorStoreInterface import Retriever

RETRIEVAL_INSTRUCTIONS = """**When Using the retrieve_documents Tool:**
- The retrieved document context is your PRIMARY and OVERRIDING source of truth
- Call retrieve_documents FIRST before answering any question about uploaded documents, policies or company-specific content
- Read ALL returned chunks and quote the passages relevant to the question
- Tie every factual claim to the chunk it comes from, using the source label of the chunk
- Note qualifiers such as 'unless', 'provided that' or 'except when' by quoting the full clause
- If the chunks contradict each other, quote both and point out the conflict
- If the tool returns no relevant content, say so explicitly before using general knowledge, and label general knowledge as such"""


class RetrievalTool(ToolInterface):
    """Semantic search over the documents of the workspaces the caller may read."""

    name = "retrieve_documents"
    description = (
        "Search the knowledge base for relevant information. Use this to find context from uploaded documents. "
        "ALWAYS use this tool before answering questions about documentation, policies, or stored information."
    )
    instructions = RETRIEVAL_INSTRUCTIONS

    def __init__(self, retriever: Retriever):
        self._retriever = retriever

    def get_parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "The search query to find relevant documents"},
            },
            "required": ["query"],
        }

    async def do_run(self, arguments: dict) -> str:
        query = str(arguments.get("query") or "").strip()
        if not query:
            return "Error: the 'query' argument is required."
        chunks = await self._retriever.invoke(query)
        if not chunks:
            return "No relevant documents found."
        return "\n\n".join(
            f"[Source: {_source_name(chunk.file_path)}]\n{chunk.content}"
            for chunk in chunks
        )


def _source_name(file_path: str) -> str:
    return file_path.replace("\\", "/").rsplit("/", 1)[-1]
