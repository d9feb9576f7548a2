"""
Streamlit dashboard for the arena. Run with: streamlit run arena_trader/dashboard/app.py
"""
