from flask_wtf import FlaskForm
from wtforms import BooleanField, HiddenField, StringField, SubmitField
from wtforms.validators import InputRequired, Length


class StoryForm(FlaskForm):
    title = StringField("Story title", validators=[InputRequired(), Length(max=150)])
    is_public = BooleanField("Make story public", default=False)
    submit = SubmitField("Create story")


class ChapterForm(FlaskForm):
    title = StringField("New chapter title", validators=[InputRequired(), Length(max=150)])
    submit = SubmitField("Add chapter")


class CollaboratorForm(FlaskForm):
    # Address format is validated in services.sharing.
    email = StringField("Email", validators=[InputRequired(), Length(max=255)])
    submit = SubmitField("Invite")


class RemoveCollaboratorForm(FlaskForm):
    user_id = HiddenField(validators=[InputRequired()])
    submit = SubmitField("Remove")


class VisibilityForm(FlaskForm):
    is_public = BooleanField("Public access")
    submit = SubmitField("Update visibility")


class ForkForm(FlaskForm):
    submit = SubmitField("Fork")
