"""Boilerplate blocks wrapped around the generated sections."""

ABOUT_REPORT = """## About This Report

This document analyzes the marketing position of **{client}** against {comparison_phrase}. It combines
publicly observable signals (website content, search visibility, social media presence and paid media
activity) with AI-assisted analysis. Figures quoted from third-party data providers are estimates and
should be read as directional rather than exact.
"""

METHODOLOGY_HEADER = """## Appendix: Data Sources & Methodology

Intelligence was gathered for {companies} compan{plural} from the following sources:

- **Social:** LinkedIn company profiles and YouTube channel statistics
- **Organic:** Moz domain authority, keyword rankings and top pages; a crawl of each company website
- **Paid:** SpyFu PPC keywords and ad history; LinkedIn and Google Ads transparency libraries

Each section was written by a language model from a bounded projection of this data together with the
sections that precede it. Long data blocks were truncated before analysis.

{succeeded} data point{succeeded_plural} collected, {failed} collection error{failed_plural} recorded.
"""

NO_ERRORS_NOTE = "All configured data sources responded successfully."

ERRORS_HEADER = "### Data Collection Gaps"


def comparison_phrase(names: list[str]) -> str:
    if not names:
        return "its market"
    if len(names) == 1:
        return f"its competitor **{names[0]}**"
    listed = ", ".join(f"**{name}**" for name in names[:-1])
    return f"competitors {listed} and **{names[-1]}**"
