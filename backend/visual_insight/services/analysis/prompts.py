"""Prompts for chart-generating analysis requests."""

import json
from typing import Any

from visual_insight.models import DatasetSchema

SYSTEM_PROMPT = """You are an expert data analyst and Python developer. Generate Python code to \
analyze and visualize data based on user queries. Always return valid, runnable Python code."""

ANALYSIS_PROMPT = """You are an expert data analyst. Analyze the following dataset and answer the user's question.

DATASET INFORMATION:
- Columns: {columns}
- Data Types: {data_types}
- Sample Data: {sample_data}
- Total Rows: {row_count}

USER QUERY: {query}

Please provide:
1. A clear analysis of the data
2. Python code to create an appropriate visualization
3. Explanation of what the visualization shows

IMPORTANT: The Python code must:
- Use the pandas DataFrame `df`, which is already loaded with the full dataset
- Use matplotlib, seaborn, or plotly for visualization
- Assign a plotly figure to `fig` if you use plotly; otherwise leave the matplotlib figure open
- NOT call plt.show(), plt.savefig() or plt.close(); the chart is saved for you
- Handle potential errors gracefully
- Be complete and runnable
- Include proper labels and titles

Format your response as:
ANALYSIS: [your analysis]
CODE: [python code block]
VISUALIZATION_TYPE: [type of chart]
EXPLANATION: [explanation of the visualization]
"""


def _json_default(value: Any) -> str:
    return str(value)


def build_analysis_prompt(query: str, schema: DatasetSchema) -> str:
    """Render the analysis prompt for a query against a dataset schema."""
    data_types = {column: dtype.value for column, dtype in schema.data_types.items()}
    return ANALYSIS_PROMPT.format(
        columns=", ".join(schema.columns),
        data_types=json.dumps(data_types),
        sample_data=json.dumps(schema.sample_data[:5], default=_json_default),
        row_count=schema.row_count,
        query=query,
    )
