"""
Rental tracker - Streamlit main app
"""
import logging
import streamlit as st
from datetime import date
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from rentaltracker.config import LOG_LEVEL, MONTHS
from rentaltracker.models.base import SessionLocal, init_db
from rentaltracker.services.auth import (
    create_session_token, validate_session_token, verify_password_from_env,
)
from rentaltracker.services.dashboard import (
    DashboardService, seasonality, sorted_bookings, year_options,
)
from rentaltracker.services.formatting import format_dkk, format_percent, parse_number
from rentaltracker.services.rental import RentalService

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create database tables
init_db()

st.set_page_config(
    page_title="Rental tracker",
    page_icon="🏠",
    layout="wide",
    initial_sidebar_state="expanded"
)

if "session_token" not in st.session_state:
    st.session_state.session_token = None
if "period" not in st.session_state:
    st.session_state.period = date.today().year
if "last_booking" not in st.session_state:
    st.session_state.last_booking = None

ALL_TIME = "All time"


def is_logged_in() -> bool:
    try:
        return validate_session_token(st.session_state.session_token)
    except RuntimeError as e:
        st.error(f"Login is not configured: {e}")
        st.stop()


def show_login():
    """Password form shown until a valid session exists"""
    st.title("🏠 Rental tracker")

    with st.form("login"):
        password = st.text_input("Password", type="password")
        if st.form_submit_button("Log in"):
            if verify_password_from_env(password):
                try:
                    st.session_state.session_token = create_session_token()
                except RuntimeError as e:
                    st.error(f"Login is not configured: {e}")
                    return
                logger.info("Login succeeded")
                st.rerun()
            else:
                logger.warning("Login failed")
                st.error("Wrong password")


def main():
    if not is_logged_in():
        show_login()
        return

    db = SessionLocal()
    try:
        service = RentalService(db)
        service.ensure_apartments()

        st.sidebar.title("🏠 Rental tracker")

        # Period selector
        current_year = date.today().year
        options = [ALL_TIME] + year_options(current_year)
        selected = st.sidebar.selectbox(
            "Period",
            options=options,
            index=options.index(st.session_state.period if st.session_state.period in options else current_year),
            format_func=str,
        )
        st.session_state.period = selected
        year = None if selected == ALL_TIME else selected

        st.sidebar.divider()

        page = st.sidebar.radio(
            "Navigation",
            ["Dashboard", "Bookings", "Seasonality", "Settings"]
        )

        st.sidebar.divider()
        if st.sidebar.button("Log out"):
            st.session_state.session_token = None
            st.rerun()

        if page == "Dashboard":
            show_dashboard(db, service, year)
        elif page == "Bookings":
            show_bookings(service, year)
        elif page == "Seasonality":
            show_seasonality(service, year)
        elif page == "Settings":
            show_settings(service, year or current_year)
    finally:
        db.close()


def show_add_booking(service: RentalService, year):
    """Form for a new booking, with the tax summary of the last one"""
    st.subheader("Add booking")
    st.caption("Use the dates for each guest and the net payout you received.")

    apartments = service.list_apartments()
    apartment_options = {a.name: a.id for a in apartments}
    today = date.today()
    default_date = today if year is None or year == today.year else date(year, 1, 1)

    with st.form("new_booking", clear_on_submit=True):
        apartment_name = st.selectbox("Apartment", options=list(apartment_options.keys()))
        col1, col2, col3 = st.columns(3)
        with col1:
            start_date = st.date_input("Check-in", value=default_date)
        with col2:
            end_date = st.date_input("Check-out", value=default_date)
        with col3:
            revenue_text = st.text_input("Net revenue (DKK)", placeholder="12.500")

        if st.form_submit_button("Add booking"):
            try:
                _, summary = service.create_booking(
                    apartment_id=apartment_options.get(apartment_name),
                    start_date=start_date,
                    end_date=end_date,
                    net_revenue=parse_number(revenue_text),
                )
                st.session_state.last_booking = summary.rounded()
                st.rerun()
            except ValueError as e:
                st.error(f"Invalid booking: {e}")

    summary = st.session_state.last_booking
    if summary:
        with st.container(border=True):
            st.success("Booking added")
            col1, col2, col3, col4 = st.columns(4)
            col1.metric("Booking revenue", format_dkk(summary.booking_revenue))
            col2.metric("Year revenue before", format_dkk(summary.total_revenue_before))
            col3.metric("Year revenue after", format_dkk(summary.total_revenue_after))
            col4.metric("Bundfradrag", format_dkk(summary.bundfradrag))
            col1, col2, col3, col4 = st.columns(4)
            col1.metric("Taxable from booking", format_dkk(summary.taxable_base_booking))
            col2.metric("Tax on booking", format_dkk(summary.tax_on_booking))
            col3.metric("Tax rate", format_percent(summary.tax_rate))
            col4.metric("Cut after tax (each)", format_dkk(summary.cut_after_tax_each))
            if st.button("Dismiss"):
                st.session_state.last_booking = None
                st.rerun()


def show_dashboard(db, service: RentalService, year):
    """Period overview with figures per apartment"""
    st.title("Dashboard")

    show_add_booking(service, year)
    st.divider()

    summary = DashboardService(db).build_period_summary(year)

    st.caption("Period overview")
    st.header(summary.title)
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Total revenue", format_dkk(summary.overall_revenue))
    with col2:
        st.metric("Tax estimate", format_dkk(summary.overall_tax_due))
    with col3:
        st.metric("Net after tax", format_dkk(summary.overall_net_after_tax))

    st.divider()

    columns = st.columns(2)
    for index, item in enumerate(summary.apartments):
        with columns[index % 2]:
            with st.container(border=True):
                st.subheader(item.apartment.name)
                col1, col2, col3 = st.columns(3)
                col1.metric("Revenue", format_dkk(item.revenue))
                col2.metric("Tax due", format_dkk(item.tax.tax_due))
                col3.metric("Net after tax", format_dkk(item.tax.net_after_tax))

    if summary.is_all_time:
        st.caption("All time tax sums the calculation frozen with each booking, "
                   "using the settings in effect when it was added.")
    else:
        st.caption(f"Tax is estimated from the year's total revenue with bundfradrag "
                   f"{format_dkk(summary.settings.bundfradrag)} and rate "
                   f"{format_percent(summary.settings.tax_rate)}.")


def show_bookings(service: RentalService, year):
    """Bookings table with delete"""
    st.title("Bookings")

    apartments = service.list_apartments()
    apartment_options = {"All apartments": None}
    apartment_options.update({a.name: a.id for a in apartments})
    selected = st.selectbox("Apartment", options=list(apartment_options.keys()))

    bookings = sorted_bookings(
        service.list_bookings(year),
        apartment_id=apartment_options[selected],
        apartment_ids={a.id for a in apartments},
    )

    st.subheader(f"Bookings ({len(bookings)})")
    st.caption("Sorted by apartment, then most recent check-in.")

    if not bookings:
        st.info("No bookings in this period")
        return

    for booking in bookings:
        snapshot = booking.snapshot
        title = (f"{booking.apartment.name}: {booking.start_date} - {booking.end_date} "
                 f"({booking.nights} nights), {format_dkk(booking.net_revenue_dkk)}")
        with st.expander(title):
            if snapshot:
                col1, col2, col3 = st.columns(3)
                col1.metric("Tax on booking", format_dkk(snapshot.tax_on_booking))
                col2.metric("Taxable from booking", format_dkk(snapshot.taxable_base_booking))
                col3.metric("Cut after tax (each)", format_dkk(snapshot.cut_after_tax_each))
                st.caption(f"Year revenue before: {format_dkk(snapshot.total_revenue_before)}, "
                           f"bundfradrag {format_dkk(snapshot.bundfradrag)}, "
                           f"rate {format_percent(snapshot.tax_rate)}")
            else:
                st.caption("No tax calculation stored for this booking")

            if st.button("Delete", key=f"delete_{booking.id}"):
                service.delete_booking(booking.id)
                st.rerun()


def show_seasonality(service: RentalService, year):
    """Revenue and nights per month"""
    st.title("Seasonality snapshot")
    st.write("Revenue is assigned to the month of check-in. Nights show how many "
             "booked nights fall in each month for each apartment.")

    apartments = service.list_apartments()
    rows = seasonality(service.list_bookings(year), apartments, year)

    columns = st.columns(max(1, len(rows)))
    for column, row in zip(columns, rows):
        with column:
            st.subheader(row.apartment.name)
            for index, month in enumerate(MONTHS):
                nights = row.nights[index]
                label = f"**{month}**" if index == row.best_month else month
                st.write(f"{label}: {format_dkk(row.revenue[index])} · "
                         f"{nights} night{'' if nights == 1 else 's'}")


def show_settings(service: RentalService, year: int):
    """Tax settings for the year and apartment names"""
    st.title("Settings")

    settings = service.get_or_create_tax_settings(year)

    st.subheader(f"Tax settings {year}")
    with st.form("tax_settings"):
        bundfradrag_text = st.text_input("Bundfradrag (DKK)", value=f"{settings.bundfradrag.normalize():f}")
        rate_text = st.text_input("Tax rate (%)", value=f"{(settings.tax_rate * 100).normalize():f}")

        if st.form_submit_button("Save"):
            try:
                service.update_tax_settings(
                    settings.id,
                    bundfradrag=parse_number(bundfradrag_text),
                    tax_rate=parse_number(rate_text) / 100,
                )
                st.success("Settings saved")
                st.rerun()
            except ValueError as e:
                st.error(f"Error: {e}")

    st.caption("Changing the settings does not change the tax stored with existing bookings.")

    st.divider()

    st.subheader("Apartments")
    for apartment in service.list_apartments():
        with st.form(f"apartment_{apartment.id}"):
            name = st.text_input("Name", value=apartment.name)
            if st.form_submit_button("Rename"):
                try:
                    service.rename_apartment(apartment.id, name)
                    st.rerun()
                except ValueError as e:
                    st.error(f"Error: {e}")

    with st.form("new_apartment", clear_on_submit=True):
        name = st.text_input("New apartment")
        if st.form_submit_button("Add apartment"):
            try:
                service.create_apartment(name)
                st.rerun()
            except ValueError as e:
                st.error(f"Error: {e}")


if __name__ == "__main__":
    main()
