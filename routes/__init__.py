from routes import admin, auth, authors, books, comments, events, posts, reviews, users

ROUTERS = [
    auth.router,
    users.router,
    books.router,
    reviews.router,
    authors.router,
    events.router,
    posts.router,
    comments.router,
    admin.router,
]
