"""Business metrics for the Jira agent host.

Defines OpenTelemetry metrics for:
- Chat: Queries received and processed
- LLM: Streaming requests per model
- Tools: Invocations, failures and latency
- Jira: REST requests issued by the tool server
"""

from opentelemetry import metrics

meter = metrics.get_meter("jira_agent_host")

# =============================================================================
# CHAT METRICS
# =============================================================================

chat_queries_received = meter.create_counter(
    name="jira_agent_host.chat.queries_received",
    description="Total queries submitted to the orchestrator",
    unit="1",
)

chat_queries_failed = meter.create_counter(
    name="jira_agent_host.chat.queries_failed",
    description="Total queries aborted by a model backend error",
    unit="1",
)

chat_query_duration = meter.create_histogram(
    name="jira_agent_host.chat.query_duration",
    description="Time from query submission to the end of the output stream",
    unit="ms",
)

# =============================================================================
# LLM METRICS
# =============================================================================

llm_request_count = meter.create_counter(
    name="jira_agent_host.llm.request_count",
    description="Total streaming LLM requests opened",
    unit="1",
)

llm_tool_calls = meter.create_counter(
    name="jira_agent_host.llm.tool_calls",
    description="Total tool calls requested by the LLM",
    unit="1",
)

# =============================================================================
# TOOL METRICS
# =============================================================================

tool_execution_count = meter.create_counter(
    name="jira_agent_host.tools.execution_count",
    description="Total tool invocations",
    unit="1",
)

tool_execution_errors = meter.create_counter(
    name="jira_agent_host.tools.execution_errors",
    description="Total failed tool invocations",
    unit="1",
)

tool_execution_time = meter.create_histogram(
    name="jira_agent_host.tools.execution_time",
    description="Time to execute a tool over MCP",
    unit="ms",
)

# =============================================================================
# JIRA METRICS
# =============================================================================

jira_request_count = meter.create_counter(
    name="jira_agent_host.jira.request_count",
    description="Total Jira REST requests",
    unit="1",
)

jira_request_errors = meter.create_counter(
    name="jira_agent_host.jira.request_errors",
    description="Total failed Jira REST requests",
    unit="1",
)
