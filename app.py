from __future__ import annotations

import tempfile
from decimal import Decimal
from pathlib import Path

import streamlit as st

from tariff_calc.catalog import TariffCatalog
from tariff_calc.fees import FeeMode, calculate_fee, example_fees, round_money
from tariff_calc.pipeline import run_schedule
from tariff_calc.tariff import TariffError, validate_tariff

st.set_page_config(page_title="Tariffs", layout="wide")
st.title("Collection Fee Tariffs")
st.caption("Pick a tariff, enter an outstanding amount, and see the collection fee.")

with st.sidebar:
    st.header("Settings")
    tariffs_path = st.text_input("Tariffs JSON", value="config/tariffs/default_tariffs.json")
    type_filter = st.selectbox("Type", ["all", "percentage", "fixed", "tiered"], index=0)
    status_filter = st.selectbox("Status", ["all", "active", "inactive"], index=0)
    query = st.text_input("Search", value="")
    corrected = st.checkbox("Count fixed fee once on fixed tariffs", value=False)

mode = FeeMode.CORRECTED if corrected else FeeMode.FAITHFUL

try:
    catalog = TariffCatalog.from_file(tariffs_path)
except TariffError as exc:
    st.error(f"Could not load tariffs: {exc}")
    st.stop()

stats = catalog.stats()
cols = st.columns(len(stats))
for col, (label, value) in zip(cols, stats.items()):
    col.metric(label.title(), value)

visible = catalog.filter(type=type_filter, status=status_filter, query=query)
if not visible:
    st.info("No tariffs match the current filters.")
    st.stop()

labels = {f"{t.name} ({t.id})": t for t in visible}
tariff = labels[st.selectbox("Tariff", list(labels))]
amount = Decimal(str(st.number_input("Outstanding amount", min_value=0.0, value=1000.0, step=100.0)))

fee = calculate_fee(amount, tariff, mode)
st.metric("Collection fee", f"{round_money(fee)} {tariff.currency}")
if not tariff.is_active:
    st.warning("This tariff is inactive.")
for issue in validate_tariff(tariff):
    st.warning(issue)
if tariff.clause_text:
    st.write(tariff.clause_text)

st.subheader("Example calculations")
st.table(
    [
        {"Amount": f"{round_money(a)} {tariff.currency}", "Fee": f"{round_money(f)} {tariff.currency}"}
        for a, f in example_fees(tariff, mode=mode)
    ]
)

st.subheader("Fee schedule export")
if st.button("Build schedule", type="primary", use_container_width=True):
    with tempfile.TemporaryDirectory() as tmpd:
        out_dir = Path(tmpd)
        try:
            result = run_schedule(
                tariffs_path=tariffs_path,
                output_csv=str(out_dir / "fee_schedule.csv"),
                output_workbook=str(out_dir / "fee_schedule.xlsx"),
                report_json=str(out_dir / "report.json"),
                mode=mode,
            )
        except TariffError as exc:
            st.error(f"Schedule failed: {exc}")
        else:
            st.json(result["summary"])
            st.session_state.schedule_outputs = {
                "csv": Path(result["output_csv"]).read_bytes(),
                "xlsx": Path(result["output_workbook"]).read_bytes(),
            }

outputs = st.session_state.get("schedule_outputs")
if outputs:
    dl1, dl2 = st.columns(2)
    with dl1:
        st.download_button("Download Schedule CSV", outputs["csv"], file_name="fee_schedule.csv")
    with dl2:
        st.download_button("Download Schedule XLSX", outputs["xlsx"], file_name="fee_schedule.xlsx")
