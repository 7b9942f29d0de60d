from sqlalchemy.orm import declarative_base

# Base model
Base = declarative_base()
