# client/main.py
#
# Run with: streamlit run client/main.py

import requests
import streamlit as st

from client import api


MAX_COMMENT_LENGTH = 5000


def users_section():
    st.subheader("User ids in the database")

    try:
        ids = api.list_user_ids()
    except (api.ApiError, requests.RequestException) as exc:
        st.error(f"❌ Could not load users: {exc}")
        ids = []

    for user_id in ids:
        st.write(user_id)

    if st.button("Populate random users"):
        with st.spinner("Fetching random identities..."):
            try:
                result = api.populate_users()
                st.success(result["message"])
                st.rerun()
            except (api.ApiError, requests.RequestException) as exc:
                st.error(f"❌ Populate failed: {exc}")

    with st.form("user_lookup"):
        user_id = st.number_input("User id", min_value=1, step=1)
        submitted = st.form_submit_button("Search")

    if submitted:
        try:
            user = api.get_user(int(user_id))
        except (api.ApiError, requests.RequestException):
            st.error("Error while searching")
            return
        if user is None:
            st.error("User not found")
        else:
            st.markdown("#### User found:")
            st.text(f"ID: {user['id']} | Name: {user['name']}")


def comments_section():
    st.subheader("Comments")

    with st.form("new_comment", clear_on_submit=True):
        content = st.text_area("Your comment", max_chars=MAX_COMMENT_LENGTH)
        submitted = st.form_submit_button("Post comment")

    if submitted and content.strip():
        try:
            api.post_comment(content)
        except (api.ApiError, requests.RequestException) as exc:
            st.error(f"❌ Could not post comment: {exc}")

    try:
        comments = api.list_comments()
    except (api.ApiError, requests.RequestException) as exc:
        st.error(f"❌ Could not load comments: {exc}")
        return

    if not comments:
        st.info("No comments yet. Add one!")
        return

    for comment in comments:
        with st.container(border=True):
            # Already escaped by the server; st.text renders it verbatim.
            st.text(comment["content"])
            if st.button("Delete", key=f"delete-{comment['id']}"):
                try:
                    api.delete_comment(comment["id"])
                    st.rerun()
                except (api.ApiError, requests.RequestException) as exc:
                    st.error(f"❌ Could not delete comment: {exc}")


st.title("Comment board")
users_section()
comments_section()
