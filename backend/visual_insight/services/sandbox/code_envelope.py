"""
Wrap analysis code in a fixed prologue and epilogue.

The prologue loads the dataset into ``df`` and configures plotting; the
epilogue saves whichever figure the analysis code left active. The result is
plain script text; nothing here touches the filesystem.

Exit codes of the generated script:
    0  chart saved
    1  dataset could not be loaded, analysis code raised, or saving failed
    3  the analysis code produced no figure
"""

from visual_insight.models import OutputFormat

EXIT_LOAD_FAILED = 1
EXIT_SAVE_FAILED = 1
EXIT_NO_FIGURE = 3

COMPLETION_MARKER = "=== EXECUTION COMPLETED ==="

PROLOGUE_TEMPLATE = """\
import sys
import warnings

import matplotlib
matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import seaborn as sns

warnings.filterwarnings("ignore")

plt.style.use("default")
sns.set_palette("husl")

_DATASET_PATH = {dataset_path}

try:
    if _DATASET_PATH.lower().endswith((".xlsx", ".xls")):
        df = pd.read_excel(_DATASET_PATH)
    else:
        df = pd.read_csv(_DATASET_PATH)
    print(f"Dataset loaded successfully with {{len(df)}} rows and {{len(df.columns)}} columns")
    print(f"Columns: {{list(df.columns)}}")
    print(f"Data types: {{df.dtypes.astype(str).to_dict()}}")
    print("\\nFirst few rows:")
    print(df.head())
except Exception as _load_error:
    print(f"Error loading dataset: {{_load_error}}", file=sys.stderr)
    sys.exit({exit_load_failed})

plt.rcParams["figure.figsize"] = (12, 8)
plt.rcParams["figure.dpi"] = {dpi}

# ---- analysis code ----
"""

EPILOGUE_TEMPLATE = """
# ---- save chart ----
_OUTPUT_PATH = {output_path}
_OUTPUT_FORMAT = {output_format}


def _active_figure():
    _candidate = globals().get("fig")
    if _candidate is not None and hasattr(_candidate, "write_html"):
        return "interactive", _candidate
    if plt.get_fignums():
        return "static", plt.gcf()
    return None, None


_kind, _figure = _active_figure()
if _figure is None:
    print("No figure was produced by the analysis code", file=sys.stderr)
    sys.exit({exit_no_figure})

try:
    if _OUTPUT_FORMAT == "html":
        if _kind == "interactive":
            _figure.write_html(_OUTPUT_PATH, include_plotlyjs="cdn")
        else:
            import plotly.tools as tls

            tls.mpl_to_plotly(_figure).write_html(_OUTPUT_PATH, include_plotlyjs="cdn")
    elif _kind == "interactive":
        _figure.write_image(_OUTPUT_PATH, format=_OUTPUT_FORMAT)
    else:
        _figure.tight_layout()
        _figure.savefig(_OUTPUT_PATH, format=_OUTPUT_FORMAT, dpi={dpi}, bbox_inches="tight")
    print(f"Chart saved successfully to: {{_OUTPUT_PATH}}")
except Exception as _save_error:
    print(f"Error saving chart: {{type(_save_error).__name__}}: {{_save_error}}", file=sys.stderr)
    sys.exit({exit_save_failed})

print("\\n{completion_marker}")
"""


def build_script(
    code: str,
    dataset_path: str,
    output_path: str,
    output_format: OutputFormat | str,
    dpi: int = 150,
) -> str:
    """
    Build the executable script for one sandboxed run.

    Args:
        code: Analysis code, inserted unchanged
        dataset_path: File the prologue loads into ``df``
        output_path: Where the epilogue writes the chart
        output_format: png, jpg, svg or html
        dpi: Resolution for static formats

    Returns:
        Complete Python source text
    """
    output_format = OutputFormat(output_format)
    # matplotlib spells jpg as "jpeg" in savefig(format=...)
    save_format = "jpeg" if output_format is OutputFormat.JPG else output_format.value

    prologue = PROLOGUE_TEMPLATE.format(
        dataset_path=repr(str(dataset_path)),
        exit_load_failed=EXIT_LOAD_FAILED,
        dpi=dpi,
    )
    epilogue = EPILOGUE_TEMPLATE.format(
        output_path=repr(str(output_path)),
        output_format=repr(save_format),
        exit_no_figure=EXIT_NO_FIGURE,
        exit_save_failed=EXIT_SAVE_FAILED,
        completion_marker=COMPLETION_MARKER,
        dpi=dpi,
    )
    return prologue + code.rstrip() + "\n" + epilogue
