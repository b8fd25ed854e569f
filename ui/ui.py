import altair as alt
import pandas as pd
import streamlit as st

PALETTE = ["#00539F", "#F06C00", "#78BE20", "#FFD200", "#E4002B", "#5F259F", "#00A5DF", "#8A8D8F"]
RATING_ORDER = ["1", "2", "3", "4", "5", "unknown"]


def render_charts(df: pd.DataFrame, section: str, palette: list = PALETTE):
    if df.empty:
        st.info("No data to chart.")
        return

    if section == "ratings":
        agg = df.assign(rating_label=df["rating"].astype("string").fillna("unknown"))
        agg = agg.groupby(["product_name", "rating_label"], as_index=False).size().rename(columns={"size": "reviews"})
        chart = (
            alt.Chart(agg, title="Rating Distribution by Product")
              .mark_bar()
              .encode(
                  x=alt.X("rating_label:N", sort=RATING_ORDER, title="Rating"),
                  y=alt.Y("reviews:Q", title="Reviews"),
                  color=alt.Color("product_name:N", scale=alt.Scale(range=palette), title="Product"),
                  xOffset="product_name:N",
                  tooltip=["product_name", alt.Tooltip("rating_label:N", title="Rating"), "reviews"]
              )
              .properties(height=280)
        )
        st.altair_chart(chart, use_container_width=True)

    elif section == "timeline":
        dated = df.dropna(subset=["review_date"]).copy()
        if dated.empty:
            st.info("No parseable review dates to plot.")
            return
        dated["month"] = dated["review_date"].dt.to_period("M").dt.to_timestamp()
        agg = dated.groupby(["month", "product_name"], as_index=False).size().rename(columns={"size": "reviews"})
        chart = (
            alt.Chart(agg, title="Reviews per Month")
              .mark_line(point=True)
              .encode(
                  x=alt.X("month:T", title="Month"),
                  y=alt.Y("reviews:Q", title="Reviews"),
                  color=alt.Color("product_name:N", scale=alt.Scale(range=palette), title="Product"),
                  tooltip=[alt.Tooltip("month:T", format="%b %Y"), "product_name", "reviews"]
              )
              .properties(height=300)
        )
        st.altair_chart(chart, use_container_width=True)


def render_review_table(df: pd.DataFrame):
    # Filters
    c1, c2, c3 = st.columns(3)
    with c1:
        products = sorted(df["product_name"].unique().tolist())
        by_product = st.multiselect("Filter: Products", options=products, default=products)
    with c2:
        ratings = st.multiselect("Filter: Ratings", options=RATING_ORDER, default=RATING_ORDER)
    with c3:
        in_range_only = st.toggle("Only reviews in date range", value=False)

    labels = df["rating"].astype("string").fillna("unknown")
    fdf = df[df["product_name"].isin(by_product) & labels.isin(ratings)].copy()
    if in_range_only:
        fdf = fdf[fdf["in_date_range"]]

    sort_col = st.selectbox("Sort reviews by", options=["review_date", "rating", "product_name", "title"])
    sort_asc = st.toggle("Ascending order", value=False)
    fdf.sort_values([sort_col, "product_name"], ascending=[sort_asc, True], inplace=True, na_position="last")

    st.dataframe(
        fdf[["product_name", "rating", "review_date", "in_date_range", "title", "text", "author", "low_confidence", "source_url"]],
        hide_index=True,
        column_config={
            "product_name": st.column_config.TextColumn("Product"),
            "rating": st.column_config.NumberColumn("Rating", format="%d ★"),
            "review_date": st.column_config.DateColumn("Date", format="DD/MM/YYYY"),
            "in_date_range": st.column_config.CheckboxColumn("In range"),
            "low_confidence": st.column_config.CheckboxColumn("Heuristic", help="Found by the last-resort text scan"),
            "source_url": st.column_config.LinkColumn("Page"),
        },
        use_container_width=True,
        height=420
    )
    st.caption(f"{len(fdf)} of {len(df)} reviews shown")


def render_status_panel(rows: list):
    if not rows:
        st.info("No status yet. Run a scrape to see robots, pagination and review counts.")
        return
    sdf = pd.DataFrame(rows)
    show_cols = ["retailer", "url", "step", "detail", "pages", "reviews"]
    for c in show_cols:
        if c not in sdf.columns:
            sdf[c] = None

    # metrics
    found = sdf[sdf["step"] == "reviews_found"]
    robots_blocked = int((sdf["step"] == "robots_blocked").sum())
    failures = int((sdf["step"] == "exception").sum())
    total_reviews = int(pd.to_numeric(found["reviews"], errors="coerce").fillna(0).sum())
    mean_pages = float(pd.to_numeric(sdf["pages"], errors="coerce").dropna().mean()) if sdf["pages"].notna().any() else 0.0

    c1, c2, c3, c4, c5 = st.columns(5)
    with c1: st.metric("Products with reviews", len(found))
    with c2: st.metric("Reviews collected", total_reviews)
    with c3: st.metric("Failed URLs", failures)
    with c4: st.metric("Robots blocked", robots_blocked)
    with c5: st.metric("Avg pages visited", f"{mean_pages:.1f}")

    st.dataframe(
        sdf[show_cols].reset_index(drop=True),
        use_container_width=True, height=320
    )
