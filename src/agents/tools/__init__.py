"""Tools agents can invoke through model function calling"""

from src.agents.tools.base import AgentTool
from src.agents.tools.compliance_tools import build_compliance_tools
from src.agents.tools.tax_tools import build_tax_tools

__all__ = ["AgentTool", "build_compliance_tools", "build_tax_tools"]
