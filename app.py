# --- Streamlit Cloud bootstrap for Playwright ---
import os, subprocess, sys

def _ensure_playwright_browser():
    # On Streamlit Cloud, apt libs come from packages.txt; just install Chromium binary.
    # Keep it NO-OP locally.
    if os.environ.get("STREAMLIT_RUNTIME", "0") == "1" or os.environ.get("STREAMLIT_SERVER_ENABLED"):
        try:
            subprocess.run(
                [sys.executable, "-m", "playwright", "install", "chromium"],
                check=False,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError:
            pass

_ensure_playwright_browser()

import asyncio
import logging
import time
from datetime import date
from typing import Dict, List

import pandas as pd
import streamlit as st

from scrapers.errors import RunFault
from scrapers.retailers import parse_url_list
from scrapers.reviews import scrape_many
from ui.ui import render_charts, render_review_table, render_status_panel
from utils import settings
from utils.csv_export import FRAME_COLUMNS, reviews_to_frame
from utils.dates import LOCALES
# ------------------------------------------------

logging.basicConfig(level=settings.LOG_LEVEL, format=settings.LOG_FORMAT)


# ---------- Streamlit setup ----------
st.set_page_config(page_title="Supermarket Review Scraper", page_icon="🛒", layout="wide")
st.title("🛒 Supermarket Review Scraper")
st.caption("Collect customer reviews from Tesco, Sainsbury's, ASDA and Morrisons product pages into one CSV.")

# ---------- Session state ----------
if "reviews_df" not in st.session_state:
    st.session_state.reviews_df = pd.DataFrame(columns=FRAME_COLUMNS)
if "status_rows" not in st.session_state:
    st.session_state.status_rows = []
if "csv" not in st.session_state:
    st.session_state.csv = None

# ---------- Sidebar inputs ----------
with st.sidebar:
    st.header("Inputs")
    urls_text = st.text_area(
        "Product URLs (one per line)",
        height=180,
        placeholder="https://www.tesco.com/groceries/en-GB/products/123456789",
    )

    use_dates = st.toggle("Mark reviews in a date range", value=False)
    date_from = date_to = None
    if use_dates:
        date_from = st.date_input("From", value=None, format="DD/MM/YYYY")
        date_to = st.date_input("To", value=date.today(), format="DD/MM/YYYY")

    with st.expander("Advanced"):
        max_reviews = st.slider("Max reviews per product", min_value=5, max_value=500,
                                value=settings.DEFAULT_MAX_REVIEWS, step=5)
        locale_choice = st.selectbox(
            "Numeric date order", ["Retailer default", *LOCALES],
            help="uk = DD/MM/YYYY, us = MM/DD/YYYY. Only used when a date like 03/04/2024 is ambiguous."
        )
        respect_robots = st.toggle("Respect robots.txt (recommended)", value=settings.RESPECT_ROBOTS,
                                   help="Skip product pages disallowed by each site's robots.txt")

    # ---------- Debug browser controls ----------
    with st.expander("Debug browser"):
        headed = st.toggle("Show browser window", value=False)
        slow_mo_ms = st.slider("Slow motion (ms per action)", 0, 1000, 0, step=50)
        trace_path = st.text_input("Record Playwright trace to (optional .zip)", value="")
        trace_path = trace_path or None
        console_log_path = st.text_input(
            "Console log file (optional)",
            value="",
            help="If blank, a timestamped log will be created under logs/ (e.g., logs/console-YYYYMMDD-HHMMSS.log)"
        )
        console_log_path = console_log_path or None

    run_btn = st.button("Scrape Reviews", type="primary")
    clear_btn = st.button("Clear results/status")

urls = parse_url_list(urls_text)

# ---------- Clear ----------
if clear_btn:
    st.session_state.reviews_df = pd.DataFrame(columns=FRAME_COLUMNS)
    st.session_state.status_rows = []
    st.session_state.csv = None

# ---------- Run ----------
if run_btn:
    if not urls:
        st.error("Add at least one product URL.")
    elif date_from and date_to and date_from > date_to:
        st.error("The start date must be on or before the end date.")
    else:
        progress = st.progress(0.0, text="Starting…")
        warnings_box = st.container()

        def on_event(event: str, data: Dict):
            if event == "start":
                progress.progress(0.0, text=f"Scraping {data['totalUrls']} product page(s)…")
            elif event == "progress":
                frac = (data["current"] - 1) / max(1, data["total"])
                progress.progress(frac, text=f"{data['current']}/{data['total']} • {data['url']}")
            elif event == "url_error":
                warnings_box.warning(f"{data['url']}: {data['message']}")
            elif event == "complete":
                progress.progress(1.0, text=f"Done • {data['totalReviews']} reviews")
            elif event == "error":
                progress.empty()

        t0 = time.perf_counter()
        try:
            result = asyncio.run(
                scrape_many(
                    urls,
                    date_from=date_from,
                    date_to=date_to,
                    max_reviews=int(max_reviews),
                    locale=None if locale_choice == "Retailer default" else locale_choice,
                    respect_robots=respect_robots,
                    emit=on_event,
                    # ---- debug flags ----
                    headed=headed,
                    slow_mo_ms=slow_mo_ms,
                    trace_path=trace_path,
                    console_log_path=console_log_path,
                )
            )
        except RunFault as e:
            st.error(f"Run error: {e}")
        else:
            elapsed = time.perf_counter() - t0
            st.session_state.reviews_df = reviews_to_frame(result.reviews)
            st.session_state.status_rows = result.status_rows
            st.session_state.csv = (result.filename, result.csv_content)
            st.success(
                f"Ready • {len(result.reviews)} reviews from {result.successful_products} of "
                f"{result.total_products} product(s) in {elapsed:.1f}s"
            )

# ---------- Main body ----------
df = st.session_state.reviews_df
status_rows: List[Dict] = st.session_state.status_rows

st.markdown("## Results")
if df.empty:
    st.info("Paste product URLs in the sidebar and click **Scrape Reviews**.")
else:
    filename, csv_content = st.session_state.csv
    st.download_button("Download CSV", data=csv_content.encode("utf-8"), file_name=filename,
                       mime="text/csv", type="primary")

    st.markdown("### Ratings")
    st.caption("Reviews without a readable rating are counted as 'unknown'.")
    render_charts(df, section="ratings")

    st.markdown("### Timeline")
    st.caption("Reviews per month, using the parsed review date.")
    render_charts(df, section="timeline")

    st.markdown("### Reviews")
    render_review_table(df)

# STATUS AT THE BOTTOM
st.markdown("## Status & Debug")
st.caption("Robots decisions, pagination stop reasons, pages visited and review counts per URL.")
render_status_panel(status_rows)
