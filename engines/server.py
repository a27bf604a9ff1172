"""
Mshahara Payroll Engines - MCP Server

FastMCP server exposing statutory payroll calculation tools:
- compute_payroll_draft: full monthly payroll for a batch of employees
- calculate_paye: PAYE for a single taxable pay figure
- calculate_benefits_in_kind: housing, vehicle and loan BIK valuation
"""

import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Importing the tool module registers its tools on the shared instance
from engines.tools.payroll_engine import mcp  # noqa: E402


def main():
    """Run the MCP server."""
    logger.info("Starting Mshahara Payroll Engines MCP Server")
    mcp.run()


if __name__ == "__main__":
    main()
