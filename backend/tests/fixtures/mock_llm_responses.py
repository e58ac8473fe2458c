"""Canned model replies for pipeline tests."""

SALES_BY_REGION_REPLY = """ANALYSIS: North has the highest combined sales, followed by East.
Sales are grouped by region and summed.

CODE:
```python
totals = df.groupby("Region")["Sales"].sum().sort_values(ascending=False)
plt.figure()
totals.plot(kind="bar", color="steelblue")
plt.title("Total Sales by Region")
plt.xlabel("Region")
plt.ylabel("Sales")
```

VISUALIZATION_TYPE: Bar chart

EXPLANATION: Each bar is the sum of sales for one region.
"""

PLOTLY_REPLY = """ANALYSIS: Sales by region as an interactive chart.
CODE:
```python
totals = df.groupby("Region", as_index=False)["Sales"].sum()
fig = px.bar(totals, x="Region", y="Sales", title="Total Sales by Region")
```
VISUALIZATION_TYPE: Interactive bar chart
EXPLANATION: Hover over a bar to see its total.
"""

RAISING_CODE_REPLY = """ANALYSIS: Looks at a column that does not exist.
CODE:
```python
df["Profit"].sum()
```
VISUALIZATION_TYPE: Bar chart
EXPLANATION: This will fail.
"""

SLEEPING_CODE_REPLY = """ANALYSIS: Takes far too long.
CODE:
import time
time.sleep(60)
VISUALIZATION_TYPE: None
EXPLANATION: Never finishes.
"""

TAGLESS_REPLY = "I'm sorry, I can't help with that dataset."
